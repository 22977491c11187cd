"""Default configuration values and constants."""

# File paths and directories
DEFAULT_PATHS = {
    "config_file": "catpoint.json"
}

# Built-in OpenCV cascades tried when the configured one is missing
MODEL_SETTINGS = {
    "builtin_cascades": [
        "haarcascade_frontalcatface.xml",
        "haarcascade_frontalcatface_extended.xml"
    ],
    "blur_kernel_size": 3,
    "valid_log_levels": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
}
