"""
Deployment tooling for DeepWiki on AWS.

This package contains:
- CloudFormation stack deployment (VPC, EFS, ECS/Fargate)
- Docker image build and push to ECR
- Cache cleanup inside the running DeepWiki container
"""

__version__ = "0.1.0"
