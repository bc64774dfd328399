"""
ProvisionConfig — the immutable run configuration.

Read once at start-up (YAML file + environment, see
``provisioner.core.config.loader``) and passed explicitly into the
plan evaluator and the orchestrator. Nothing downstream reads
environment variables.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from provisioner.core.models.artifact import DEFAULT_MIN_SIZE_BYTES

DEFAULT_CUSTOM_NODES: dict[str, str] = {
    "ComfyUI-WanVideoWrapper": "https://github.com/kijai/ComfyUI-WanVideoWrapper.git",
    "ComfyUI-KJNodes": "https://github.com/kijai/ComfyUI-KJNodes.git",
}


class ProvisionConfig(BaseModel):
    """Flat, frozen configuration for one provisioning run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # ── Artifact category flags ──────────────────────────────────
    download_480p_native_models: bool = False
    debug_models: bool = False
    download_wan_fun_and_sdxl_helper: bool = False
    download_vace: bool = False
    download_vace_debug: bool = False
    download_720p_native_models: bool = False

    # ── Optimizations / service tweaks ───────────────────────────
    enable_optimizations: bool = True
    require_optimizations: bool = False
    skip_preview_method_patch: bool = False

    # ── Filesystem layout ────────────────────────────────────────
    network_volume: Path = Path("/workspace")
    baked_install_dir: Path = Path("/ComfyUI")
    workflow_source_dir: Path = Path("/comfyui-wan/workflows")
    override_script: Path | None = None     # None = <volume>/additional_params.sh
    log_dir: Path | None = None             # None = <volume>/provision_logs
    build_log: Path = Path("/var/log/sage_build.log")
    build_root: Path = Path("/")

    # ── Installs ─────────────────────────────────────────────────
    required_tools: tuple[str, ...] = ("aria2c", "curl", "rsync")
    custom_nodes: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_CUSTOM_NODES),
    )
    runtime_extras: tuple[str, ...] = ("onnxruntime-gpu",)
    sage_attention_repo: str = "https://github.com/thu-ml/SageAttention.git"
    civitai_downloader_repo: str = "https://github.com/Hearmeman24/CivitAI_Downloader.git"
    civitai_downloader_dir: Path | None = Path("/usr/local/bin")   # None = skip

    # ── Downloads ────────────────────────────────────────────────
    download_connections: int = Field(default=16, ge=1, le=16)
    download_piece_size: str = "1M"
    min_artifact_bytes: int = Field(default=DEFAULT_MIN_SIZE_BYTES, ge=0)

    # ── Polling ──────────────────────────────────────────────────
    download_poll_seconds: float = Field(default=5.0, gt=0)
    build_poll_seconds: float = Field(default=10.0, gt=0)
    readiness_poll_seconds: float = Field(default=2.0, gt=0)
    readiness_timeout_seconds: float | None = None

    # ── Service ──────────────────────────────────────────────────
    service_url: str = "http://127.0.0.1:8188"
    pod_id: str = ""
    start_notebook: bool = True

    def paths(self, volume: Path | None = None) -> NodePaths:
        """Derived directory layout.

        Args:
            volume: Effective volume root. Defaults to ``network_volume``;
                the orchestrator passes ``/`` when no volume is mounted.
        """
        return NodePaths.for_volume(volume or self.network_volume, self)


@dataclass(frozen=True)
class NodePaths:
    """Fixed sub-paths of the service installation on the volume."""

    volume: Path
    comfy_dir: Path
    custom_nodes: Path
    workflows: Path
    models: Path
    diffusion_models: Path
    text_encoders: Path
    clip_vision: Path
    vae: Path
    loras: Path
    upscale_models: Path
    controlnet: Path
    manager_config: Path
    override_script: Path
    log_dir: Path
    service_log: Path

    @classmethod
    def for_volume(cls, volume: Path, config: ProvisionConfig) -> NodePaths:
        comfy = volume / "ComfyUI"
        models = comfy / "models"
        pod = config.pod_id or "local"
        return cls(
            volume=volume,
            comfy_dir=comfy,
            custom_nodes=comfy / "custom_nodes",
            workflows=comfy / "user" / "default" / "workflows",
            models=models,
            diffusion_models=models / "diffusion_models",
            text_encoders=models / "text_encoders",
            clip_vision=models / "clip_vision",
            vae=models / "vae",
            loras=models / "loras",
            upscale_models=models / "upscale_models",
            controlnet=models / "controlnet",
            manager_config=comfy / "user" / "default" / "ComfyUI-Manager" / "config.ini",
            override_script=config.override_script or volume / "additional_params.sh",
            log_dir=config.log_dir or volume / "provision_logs",
            service_log=volume / f"comfyui_{pod}_nohup.log",
        )

    def model_dir(self, name: str) -> Path:
        """Resolve a catalog directory name (e.g. ``"loras"``) under models/."""
        return self.models / name
