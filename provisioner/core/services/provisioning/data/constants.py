"""
L0 Data — Module-level constants.

Pure data. No logic. No imports beyond stdlib.
"""

from __future__ import annotations

import sys

# pip of the interpreter that also runs the service.
_PIP: list[str] = [sys.executable, "-m", "pip"]
_PYTHON: str = sys.executable

# aria2c writes this control file next to an unfinished download.
ARIA2_CONTROL_SUFFIX = ".aria2"

ARIA2_BINARY = "aria2c"

# Binary → apt package that provides it.
TOOL_PACKAGES: dict[str, str] = {
    "aria2c": "aria2",
    "curl": "curl",
    "rsync": "rsync",
    "git": "git",
}

# Standalone CivitAI download helper, installed onto the PATH.
CIVITAI_DOWNLOADER_SCRIPT = "download_with_aria.py"

# Low-rank adapters sometimes arrive with the archive extension.
MISNAMED_SUFFIX = ".zip"
WEIGHTS_SUFFIX = ".safetensors"

# ComfyUI-Manager config.ini, written verbatim when absent.
MANAGER_CONFIG_SECTION = "default"
MANAGER_CONFIG_DEFAULTS: dict[str, str] = {
    "preview_method": "auto",
    "git_exe": "",
    "use_uv": "False",
    "channel_url": "https://raw.githubusercontent.com/ltdrdata/ComfyUI-Manager/main",
    "share_option": "all",
    "bypass_ssl": "False",
    "file_logging": "True",
    "component_policy": "workflow",
    "update_policy": "stable-comfyui",
    "windows_selector_event_loop_policy": "False",
    "model_download_by_agent": "False",
    "downgrade_blacklist": "",
    "security_level": "normal",
    "skip_migration_check": "False",
    "always_lazy_install": "False",
    "network_mode": "public",
    "db_mode": "cache",
}
PREVIEW_METHOD_KEY = "preview_method"
PREVIEW_METHOD_VALUE = "auto"

# Service launch flag enabled by the optimization build.
OPTIMIZATION_FLAG = "--use-sage-attention"
