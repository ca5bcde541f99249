TEST_REGION = "ap-northeast-1"
TEST_PROJECT = "deepwiki"

VPC_STACK = "deepwiki-vpc-network"
EFS_STACK = "deepwiki-efs"
ECS_STACK = "deepwiki-ecs"

TEST_OPENAI_KEY = "sk-test-openai"
TEST_ECR_URI = "123456789012.dkr.ecr.ap-northeast-1.amazonaws.com/deepwiki"

ECS_OUTPUTS = {
    'ECRRepositoryURI': TEST_ECR_URI,
    'ECSClusterName': "deepwiki-cluster",
    'ECSServiceName': "deepwiki-service",
}

CACHE_ROOT = "/root/.adalflow"

MINIMAL_TEMPLATE = """AWSTemplateFormatVersion: '2010-09-09'
Parameters:
  ProjectName:
    Type: String
Resources:
  Bucket:
    Type: AWS::S3::Bucket
Outputs:
  BucketName:
    Value: !Ref Bucket
"""
