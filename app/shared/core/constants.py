from enum import Enum

# Infrastructure Constants
AWS_SUPPORTED_REGIONS = [
    "us-east-1",
    "us-east-2",
    "us-west-1",
    "us-west-2",
    "af-south-1",
    "ap-east-1",
    "ap-south-1",
    "ap-northeast-3",
    "ap-northeast-2",
    "ap-southeast-1",
    "ap-southeast-2",
    "ap-northeast-1",
    "ca-central-1",
    "eu-central-1",
    "eu-west-1",
    "eu-west-2",
    "eu-south-1",
    "eu-west-3",
    "eu-north-1",
    "me-south-1",
    "sa-east-1",
    "us-gov-east-1",
    "us-gov-west-1",
]

# Cost Explorer only serves this many months of history
COST_EXPLORER_MAX_RETENTION_MONTHS = 14


class LLMProvider(str, Enum):
    """Supported LLM Providers."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    CLAUDE = "anthropic"  # Alias for backward compatibility in config


class CostService(str, Enum):
    """Cost Explorer SERVICE dimension values the assistant can filter on."""

    DATABASE = "Amazon Relational Database Service"
    COMPUTE = "Amazon Elastic Compute Cloud - Compute"
    STORAGE = "Amazon Simple Storage Service"


# (metric name, statistic) pairs embedded into every database record
RDS_METRICS = [
    ("CPUUtilization", "Average"),
    ("FreeableMemory", "Average"),
    ("ReadIOPS", "Average"),
    ("WriteIOPS", "Average"),
    ("DatabaseConnections", "Average"),
    ("FreeStorageSpace", "Average"),
]
