"""
Batch Processing Pipeline

Per item: upload -> build parameters -> submit -> poll -> record.
One orchestrator serves every profile (restyle, upscale, generate).
"""
