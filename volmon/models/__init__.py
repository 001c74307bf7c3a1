from .alert import AlertRecord
from .base import Base
from .cycle_run import CycleRun
from .snapshot_generation import SnapshotGenerationRecord

__all__ = ["AlertRecord", "Base", "CycleRun", "SnapshotGenerationRecord"]
