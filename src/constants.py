"""
Global constants for the cfg.bin Text Editor.
Contains path configuration and default file naming.
"""

import os

# **************************************************************** #
#                       Build Info                                     #
# **************************************************************** #
APP_NAME = "cfgbin-text-editor"
APP_VERSION = "dev"

# **************************************************************** #
#                       Environment Detection                        #
# **************************************************************** #
DEV_MODE = os.getenv("DEV_MODE", "false").lower() == "true"

SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))

# **************************************************************** #
#                       Path Configuration                           #
# **************************************************************** #
if DEV_MODE:
    TEMP_LOG_DIR = os.path.join(SCRIPT_DIR, "..", "workdir")
    CONFIG_FILE = os.path.join(SCRIPT_DIR, "..", "workdir", "config.json")
else:
    TEMP_LOG_DIR = SCRIPT_DIR
    CONFIG_FILE = os.path.join(SCRIPT_DIR, "config.json")

# **************************************************************** #
#                       File Naming                                  #
# **************************************************************** #
CFGBIN_SUFFIX = ".cfg.bin"
DEFAULT_OUTPUT_SUFFIX = "_updated"
TEXT_EXTENSIONS = {
    "json": ".json",
    "txt": ".txt",
}

# **************************************************************** #
#                       Edit Modes                                   #
# **************************************************************** #
MODE_STANDARD = "standard"  # full rebuild, fields matched by sequence index
MODE_NNK = "nnk"  # in-place string table patch, fields matched by address
EDIT_MODES = (MODE_STANDARD, MODE_NNK)
