from .compute import ComputeScanner
from .database import DatabaseScanner
from .network import LoadBalancerScanner
from .storage import StorageScanner

__all__ = [
    "ComputeScanner",
    "StorageScanner",
    "DatabaseScanner",
    "LoadBalancerScanner",
]
