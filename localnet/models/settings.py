"""Runner settings."""

from pydantic import BaseModel, Field


class RunnerSettings(BaseModel):
    """Tunables for launching, polling and stopping a network."""
    poll_interval: float = Field(10.0, gt=0, description="Seconds between bootstrap polls")
    node_timeout: float = Field(60.0, gt=0, description="Seconds a node has to bootstrap")
    request_timeout: float = Field(20.0, gt=0, description="HTTP timeout for info API calls")
    dir_mode: int = Field(0o750, description="Mode for directories created for config artifacts")
    config_file_flag: str = Field("config-file", description="Flag passing the config file to a node")
    stop_grace_period: float = Field(10.0, ge=0, description="Seconds to wait for a stopped node to exit")
    log_to_files: bool = Field(
        False,
        description="Write node output to <chain-config-dir>/node.log instead of relaying it to the log"
    )


DEFAULT_SETTINGS = RunnerSettings()
