"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- storage: Object store (MinIO / S3) via boto3
- staging: Local disk where uploads wait before they are stored
"""
