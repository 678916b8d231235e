"""Kubernetes client connection for the injector."""

import base64
import logging
import tempfile
from pathlib import Path
from typing import Optional

from kubernetes import config
from kubernetes.client import ApiClient, CoreV1Api

from .config import Settings

logger = logging.getLogger(__name__)


class ClusterConnection:
    """CoreV1 access to the cluster holding the trust bundle and its targets."""

    def __init__(
        self,
        kubeconfig_path: Optional[str] = None,
        kubeconfig_data: Optional[str] = None,
        context: Optional[str] = None,
    ):
        """
        Load client configuration and build the CoreV1 API.

        Inline kubeconfig data wins over a path; with neither, the in-cluster
        service account is used.

        Raises:
            ValueError: If no usable configuration could be loaded
        """
        self.context = context
        self._temp_kubeconfig: Optional[Path] = None
        self._api_client: Optional[ApiClient] = None
        self._core_v1: Optional[CoreV1Api] = None

        try:
            if kubeconfig_data:
                kubeconfig_path = str(self._write_temp_kubeconfig(kubeconfig_data))
            self._load_config(kubeconfig_path)
        except Exception as e:
            self._remove_temp_kubeconfig()
            raise ValueError(f"Failed to initialize cluster connection: {e}") from e

        self._api_client = ApiClient()
        self._core_v1 = CoreV1Api(self._api_client)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClusterConnection":
        return cls(
            kubeconfig_path=settings.kubeconfig_path,
            kubeconfig_data=settings.kubeconfig_data,
            context=settings.kube_context,
        )

    def _write_temp_kubeconfig(self, data: str) -> Path:
        with tempfile.NamedTemporaryFile(mode="wb", suffix=".kubeconfig", delete=False) as f:
            self._temp_kubeconfig = Path(f.name)
            f.write(base64.b64decode(data))
        return self._temp_kubeconfig

    def _load_config(self, kubeconfig_path: Optional[str]) -> None:
        if kubeconfig_path:
            logger.info(f"Loading kubeconfig (context: {self.context or 'current'})")
            config.load_kube_config(config_file=kubeconfig_path, context=self.context)
        else:
            logger.info("Loading in-cluster configuration")
            config.load_incluster_config()

    def _remove_temp_kubeconfig(self) -> None:
        if self._temp_kubeconfig is not None:
            self._temp_kubeconfig.unlink(missing_ok=True)
            self._temp_kubeconfig = None

    @property
    def core_v1(self) -> CoreV1Api:
        if self._core_v1 is None:
            raise RuntimeError("Cluster connection is closed")
        return self._core_v1

    def close(self) -> None:
        """Release the API client and any inline kubeconfig written to disk."""
        if self._api_client is not None:
            self._api_client.close()
        self._api_client = None
        self._core_v1 = None
        self._remove_temp_kubeconfig()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
