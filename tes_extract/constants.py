"""
Constants for archive magic values, record layouts and autodetection
Layouts follow the UESP wiki (Tes3Mod:BSA_File_Format, Tes5Mod:Archive_File_Format)
"""

# File magic (first 4 bytes of every archive)
MORROWIND_MAGIC = b"\x00\x01\x00\x00"
BSA_MAGIC = b"BSA\x00"
BA2_MAGIC = b"BTDX"
MAGIC_LEN = 4

# Oblivion-style BSA versions
BSA_VERSION_OBLIVION = 0x67
BSA_VERSION_SKYRIM = 0x68  # also Fallout 3 and Fallout New Vegas
BSA_VERSION_SKYRIM_SE = 0x69

# BA2 versions and payload types
BA2_VERSION_FALLOUT4 = 0x1
BA2_TYPE_GENERAL = b"GNRL"
BA2_TYPE_TEXTURES = b"DX10"

# Morrowind layout (header size excludes the magic)
MW_HEADER_LEN = 0x8
MW_FILE_RECORD_LEN = 0x8
MW_NAME_OFFSET_LEN = 0x4
MW_HASH_LEN = 0x8

# Oblivion-style layout (header size excludes the magic)
OB_HEADER_LEN = 0x20
OB_FOLDER_RECORD_LEN = 0x10
SSE_FOLDER_RECORD_LEN = 0x18
OB_FILE_RECORD_LEN = 0x10

# Bit 30 of a file record's size inverts the archive-wide compression default
OB_COMPRESSION_TOGGLE = 0x4000_0000
OB_SIZE_MASK = 0x3FFF_FFFF

# BA2 layout (header size includes the magic)
BA2_HEADER_LEN = 0x18
BA2_GENERAL_RECORD_LEN = 0x24
BA2_TEXTURE_HEADER_LEN = 0x18
BA2_TEXTURE_CHUNK_LEN = 0x18

# End-of-record marker in BA2 records
BA2_RECORD_SENTINEL = 0xBAADF00D

# Length of the uncompressed size hint in front of compressed payloads
SIZE_HINT_LEN = 4

# Default values
ZLIB_WINDOW_SIZE = 15

# Caps on the output buffer preallocated from a size hint
ZLIB_MAX_RATIO = 1032  # deflate never expands more than this
MAX_PREALLOCATION = 64 * 1024 * 1024
ARCHIVE_EXTENSIONS = (".bsa", ".ba2")

# Registry autodetection (Windows only)
REGISTRY_ROOT = "SOFTWARE\\WOW6432Node\\Bethesda Softworks"
REGISTRY_INSTALL_VALUE = "installed path"
DATA_FOLDER = "Data"

GAME_REGISTRY_KEYS = {
    "fallout4": "Fallout4",
    "falloutnv": "falloutnv",
    "oblivion": "oblivion",
    "skyrim": "skyrim",
    "skyrimse": "Skyrim Special Edition",
}
