"""Centralized user-facing text for dlxkit."""

from __future__ import annotations

class Styles:
    ERROR = "red"
    WARNING = "yellow"
    SUCCESS = "green"
    INFO = "dim"
    TITLE = "bold cyan"
    TABLE_HEADER = "bold magenta"


class Messages:
    APP_HELP = "dlxkit – download, cache, verify and run external executables."
    HELP_VERSION = "Show version and exit."
    HELP_VERBOSE = "Enable debug logging."
    HELP_RUN = "Download (or reuse) a binary from URL and execute it."
    HELP_DOWNLOAD = "Download (or reuse) a binary from URL without executing it."
    HELP_WHICH = "Locate a command on PATH and resolve launcher shims to the real program."
    HELP_DETECT = "Report whether a path runs as a Node package or a native binary."
    HELP_EXEC = "Resolve a command or path through its shims and execute it."
    HELP_CACHE = "Inspect or prune the dlx cache."
    HELP_CONFIG = "Show or change dlxkit configuration."
    HELP_URL = "URL of the binary to download."
    HELP_ARGS = "Arguments passed to the executed program (put -- before any that clash with dlxkit options)."
    HELP_NAME = "File name for the cached binary (defaults to binary-<platform>-<arch>)."
    HELP_CHECKSUM = "Expected SHA-256 hex digest of the download."
    HELP_INTEGRITY = "Expected SRI integrity string (e.g. sha512-<base64>)."
    HELP_FORCE = "Re-download even when a fresh cached copy exists."
    HELP_TTL_DAYS = "Cache freshness window in days."
    HELP_WHICH_NAME = "Command name to look up on PATH."
    HELP_WHICH_ALL = "Show every match on PATH instead of the first."
    HELP_DETECT_PATH = "Path to classify."
    HELP_EXEC_BIN = "Command name or path to execute."
    HELP_CACHE_SHOW = "List cached binaries."
    HELP_CACHE_CLEAN = "Remove cached binaries older than --max-age-days."
    HELP_CACHE_MAX_AGE = "Maximum age in days kept by --clean."
    HELP_CACHE_CLEAR = "Remove every entry from the dlx directory."
    HELP_CACHE_REMOVE = "Remove a single dlx directory entry by name."
    HELP_CONFIG_SHOW = "Show current configuration."
    HELP_SET_DLX_DIR = "Persist a custom dlx cache directory."
    HELP_CLEAR_DLX_DIR = "Remove the persisted dlx cache directory."
    HELP_SET_TTL_DAYS = "Persist the default cache freshness window in days."

    ERROR_BINARY_NOT_FOUND = (
        "Binary not found: {name}\n"
        "Possible causes:\n"
        '  - Binary "{name}" is not installed or not in PATH\n'
        "  - Binary name is incorrect or misspelled\n"
        "  - Installation directory is not in system PATH\n"
        "To resolve:\n"
        '  1. Verify "{name}" is installed: which {name} (Unix) or where {name} (Windows)\n'
        "  2. Install the binary if missing, ex: npm install -g {name}\n"
        "  3. Check PATH environment variable includes the binary location"
    )
    ERROR_DOWNLOAD_FAILED = (
        "Failed to download binary from {url}\n"
        "Destination: {dest}\n"
        "Check your internet connection or verify the URL is accessible."
    )
    ERROR_DOWNLOAD_STATUS = "Failed to download binary from {url} (HTTP {status})"
    ERROR_CHECKSUM_MISMATCH = "Checksum mismatch: expected {expected}, got {actual}"
    ERROR_INTEGRITY_MISMATCH = "Integrity mismatch: expected {expected}, got {actual}"
    ERROR_INTEGRITY_INVALID = "Unsupported integrity value: {value}"
    ERROR_CACHE_DIR_PERMISSION = (
        "Permission denied creating binary cache directory: {path}\n"
        "Please check directory permissions or run with appropriate access."
    )
    ERROR_CACHE_DIR_READONLY = (
        "Cannot create binary cache directory on read-only filesystem: {path}\n"
        "Ensure the filesystem is writable or set SOCKET_DLX_DIR to a writable location."
    )
    ERROR_CACHE_DIR_FAILED = "Failed to create binary cache directory: {path}"
    ERROR_REMOVE_PERMISSION = (
        'Permission denied removing DLX package "{name}"\n'
        "Directory: {path}\n"
        "To resolve:\n"
        "  1. Check file/directory permissions\n"
        "  2. Close any programs using files in this directory\n"
        "  3. Try running with elevated privileges if necessary\n"
        '  4. Manually remove: rm -rf "{path}"'
    )
    ERROR_REMOVE_READONLY = (
        'Cannot remove DLX package "{name}" from read-only filesystem\n'
        "Directory: {path}\n"
        "The filesystem is mounted read-only."
    )
    ERROR_REMOVE_FAILED = (
        'Failed to remove DLX package "{name}"\n'
        "Directory: {path}\n"
        "Check permissions and ensure no programs are using this directory."
    )
    ERROR_CONFIG_JSON_INVALID = "Config payload must be a JSON object."
    ERROR_CONFIG_VALUE_INVALID = "Invalid value for config field '{field}'."
    ERROR_TTL_INVALID = "TTL must be greater than 0 days."
    ERROR_CACHE_OPTION_CONFLICT = "Choose only one of --show, --clean, --clear or --remove."
    ERROR_DLX_DIR_CONFLICT = "Use either --set-dlx-dir or --clear-dlx-dir, not both."
    ERROR_SPAWN_FAILED = "Unable to start {path}: {reason}"
    ERROR_LOCK_TIMEOUT = "Timed out waiting for lock: {path}"

    INFO_DOWNLOADED = "Downloaded {path}"
    INFO_CACHE_HIT = "Using cached {path}"
    INFO_DETECT_SUMMARY = (
        "Type: {type}\n"
        "Method: {method}\n"
        "In dlx cache: {in_cache}\n"
        "package.json: {package_json}"
    )
    INFO_CACHE_EMPTY = "No cached binaries found in {path}."
    INFO_CACHE_HEADER = "Cached binaries in {path}"
    INFO_CACHE_CLEANED = "Removed {count} expired cache entr{plural}."
    INFO_CACHE_CLEARED = "Removed {count} dlx entr{plural}."
    INFO_CACHE_CLEAR_NONE = "The dlx directory is already empty."
    INFO_CACHE_REMOVED = "Removed {name}."
    INFO_CACHE_CHOOSE = "Nothing to do. Pass --show, --clean, --clear or --remove."
    INFO_CONFIG_SUMMARY = (
        "dlx directory: {dlx_dir}\n"
        "Configured dlx directory: {configured}\n"
        "Cache TTL: {ttl_days} day(s)\n"
        "Config file: {config_file}"
    )
    INFO_DLX_DIR_SET = "dlx directory set to {value}."
    INFO_DLX_DIR_CLEARED = "dlx directory reset to the default."
    INFO_TTL_SET = "Cache TTL set to {value} day(s)."

    TABLE_HEADER_NAME = "Name"
    TABLE_HEADER_KEY = "Cache key"
    TABLE_HEADER_URL = "URL"
    TABLE_HEADER_SIZE = "Size"
    TABLE_HEADER_AGE = "Age"
    TABLE_HEADER_PLATFORM = "Platform"
    TABLE_HEADER_VERIFIED = "Checksum"
