"""
Utility modules for the warehouse audit report engine.
"""

from utils.config import config, LOG_FILE
from utils.logger import setup_logger, get_logger, set_request_id
from utils.image_utils import (
    decode_data_uri,
    get_image_dimensions,
    is_data_uri,
    load_image_bytes,
    resize_image,
    to_embeddable,
)

__all__ = [
    "config",
    "LOG_FILE",
    "setup_logger",
    "get_logger",
    "set_request_id",
    "decode_data_uri",
    "get_image_dimensions",
    "is_data_uri",
    "load_image_bytes",
    "resize_image",
    "to_embeddable",
]
