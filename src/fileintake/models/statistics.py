from pydantic import BaseModel


class BatchStatistics(BaseModel):
    total_files: int = 0
    total_original_size: int = 0
    total_compressed_size: int = 0
    total_saved: int = 0
    total_saved_formatted: str = "0 Bytes"
    compressed_files: int = 0
    average_compression_ratio: float = 0.0
    pending_count: int = 0
    processing_count: int = 0
    ready_count: int = 0
    error_count: int = 0
