"""External tool provisioning."""

from ccmusic.tools.download import download_transcoder
from ccmusic.tools.provisioner import ToolProvisioner

__all__ = ["ToolProvisioner", "download_transcoder"]
