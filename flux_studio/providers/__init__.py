"""
External providers

- Replicate: job submission and status
- Cloudinary: source asset upload
"""
