"""Configuration for imagescan."""

import os

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable overrides."""

    osv_api_url: str = "https://api.osv.dev/v1"
    osv_timeout_seconds: float = 30.0
    osv_batch_size: int = 1000

    # Which vulnerability types to scan: "os", "library"
    vuln_type: list[str] = ["os", "library"]

    table_width: int = 200
    title_word_limit: int = 12

    docker_bin: str = "docker"
    rpm_bin: str = "rpm"

    model_config = {"env_prefix": "IMAGESCAN_"}


class DockerSettings(BaseSettings):
    """Docker daemon connection options, read from the standard DOCKER_* variables."""

    docker_host: str = ""
    docker_cert_path: str = ""
    docker_tls_verify: str = ""
    docker_config: str = ""
    docker_timeout_seconds: float = 600.0

    model_config = {"env_prefix": ""}

    def env(self) -> dict[str, str]:
        """Environment for the docker client subprocess."""
        env = dict(os.environ)
        for key, value in (
            ("DOCKER_HOST", self.docker_host),
            ("DOCKER_CERT_PATH", self.docker_cert_path),
            ("DOCKER_TLS_VERIFY", self.docker_tls_verify),
            ("DOCKER_CONFIG", self.docker_config),
        ):
            if value:
                env[key] = value
        return env


def get_docker_options() -> DockerSettings:
    return DockerSettings()


settings = Settings()
