"""
ChromaSift services: range combination, palette quantization and their
shared imaging, reliability, preset and observability support.
"""
