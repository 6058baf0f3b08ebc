"""Constants and tuning values for the SNI proxy core."""

__version__ = "1.2.0"

FORWARD_PORT = 443

# tuning
SNI_BUF_SIZE = 2048
BUF_SIZE = 65536
DRAIN_HWM = 1 << 20  # 1MB
SESSION_TIMEOUT = 30.0

DEFAULT_CONFIG_FILE = "config.yaml"
DEFAULT_LISTEN_ADDR = ":443"

# ANSI colors
COLOR_PLAIN = 0
COLOR_RED = 31
COLOR_GREEN = 32
