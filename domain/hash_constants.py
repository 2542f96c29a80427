"""Hash and layout constants for the install cache."""

HASH_ALGORITHM = "md5"
BLOCK_SIZE = 8192  # 8KB block size for file processing
MARKER_FILE_NAME = "hash.txt"  # Written inside the install directory
ARCHIVE_EXTENSION = ".tar.gz"
