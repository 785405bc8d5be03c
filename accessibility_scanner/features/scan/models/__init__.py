"""
Scan models package.
"""
from accessibility_scanner.features.scan.models.scan_result import ScanResultRecord

__all__ = ["ScanResultRecord"]
