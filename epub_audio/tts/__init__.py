"""
epub_audio TTS Module - Provider registry, chunk synthesis and the chapter pipeline.
"""
