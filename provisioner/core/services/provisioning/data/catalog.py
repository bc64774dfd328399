"""
L0 Data — Model artifact catalog.

Every downloadable file, grouped by category. Pure data, no logic.

Each category:
    category   — stable identifier
    label      — human-readable name for logs
    flag       — ProvisionConfig field gating the category (None = always)
    artifacts  — list of {"dir", "url"[, "filename"]}

``dir`` is relative to ``ComfyUI/models``. ``filename`` defaults to the
last URL path segment.
"""

from __future__ import annotations

_REPACK = (
    "https://huggingface.co/Comfy-Org/Wan_2.1_ComfyUI_repackaged"
    "/resolve/main/split_files"
)
_KIJAI = "https://huggingface.co/Kijai/WanVideo_comfy/resolve/main"


ARTIFACT_CATEGORIES: list[dict] = [

    # ── Conditional model sets ──────────────────────────────────

    {
        "category": "native_480p",
        "label": "480p native models",
        "flag": "download_480p_native_models",
        "artifacts": [
            {"dir": "diffusion_models",
             "url": f"{_REPACK}/diffusion_models/wan2.1_i2v_480p_14B_bf16.safetensors"},
            {"dir": "diffusion_models",
             "url": f"{_REPACK}/diffusion_models/wan2.1_t2v_14B_bf16.safetensors"},
            {"dir": "diffusion_models",
             "url": f"{_REPACK}/diffusion_models/wan2.1_t2v_1.3B_bf16.safetensors"},
        ],
    },
    {
        "category": "debug_480p",
        "label": "480p native debug models",
        "flag": "debug_models",
        "artifacts": [
            {"dir": "diffusion_models",
             "url": f"{_REPACK}/diffusion_models/wan2.1_i2v_480p_14B_fp16.safetensors"},
        ],
    },
    {
        "category": "wan_fun_sdxl_helper",
        "label": "Wan Fun 14B model and SDXL controlnet helper",
        "flag": "download_wan_fun_and_sdxl_helper",
        "artifacts": [
            {"dir": "diffusion_models",
             "url": "https://huggingface.co/alibaba-pai/Wan2.1-Fun-14B-Control"
                    "/resolve/main/diffusion_pytorch_model.safetensors"},
            {"dir": "controlnet/SDXL/controlnet-union-sdxl-1.0",
             "url": "https://huggingface.co/xinsir/controlnet-union-sdxl-1.0"
                    "/resolve/main/diffusion_pytorch_model_promax.safetensors"},
        ],
    },
    {
        "category": "vace",
        "label": "VACE models",
        "flag": "download_vace",
        "artifacts": [
            {"dir": "diffusion_models",
             "url": f"{_KIJAI}/Wan2_1-VACE_module_14B_bf16.safetensors"},
            {"dir": "diffusion_models",
             "url": f"{_KIJAI}/Wan2_1-VACE_module_1_3B_bf16.safetensors"},
        ],
    },
    {
        "category": "vace_debug",
        "label": "VACE debug models",
        "flag": "download_vace_debug",
        "artifacts": [
            {"dir": "diffusion_models",
             "url": f"{_REPACK}/diffusion_models/wan2.1_vace_14B_fp16.safetensors"},
        ],
    },
    {
        "category": "native_720p",
        "label": "720p native models",
        "flag": "download_720p_native_models",
        "artifacts": [
            {"dir": "diffusion_models",
             "url": f"{_REPACK}/diffusion_models/wan2.1_i2v_720p_14B_bf16.safetensors"},
            # Shared with native_480p.
            {"dir": "diffusion_models",
             "url": f"{_REPACK}/diffusion_models/wan2.1_t2v_14B_bf16.safetensors"},
            {"dir": "diffusion_models",
             "url": f"{_REPACK}/diffusion_models/wan2.1_t2v_1.3B_bf16.safetensors"},
        ],
    },

    # ── Always downloaded ───────────────────────────────────────

    {
        "category": "optimization_loras",
        "label": "optimization loras",
        "flag": None,
        "artifacts": [
            {"dir": "loras",
             "url": f"{_KIJAI}/Wan21_CausVid_14B_T2V_lora_rank32.safetensors"},
            {"dir": "loras",
             "url": f"{_KIJAI}/Wan21_T2V_14B_lightx2v_cfg_step_distill_lora_rank32.safetensors"},
        ],
    },
    {
        "category": "text_encoders",
        "label": "text encoders",
        "flag": None,
        "artifacts": [
            {"dir": "text_encoders",
             "url": f"{_REPACK}/text_encoders/umt5_xxl_fp8_e4m3fn_scaled.safetensors"},
            {"dir": "text_encoders",
             "url": f"{_KIJAI}/open-clip-xlm-roberta-large-vit-huge-14_visual_fp16.safetensors"},
            {"dir": "text_encoders",
             "url": f"{_KIJAI}/umt5-xxl-enc-bf16.safetensors"},
        ],
    },
    {
        "category": "clip_vision",
        "label": "CLIP vision models",
        "flag": None,
        "artifacts": [
            {"dir": "clip_vision",
             "url": f"{_REPACK}/clip_vision/clip_vision_h.safetensors"},
        ],
    },
    {
        "category": "vae",
        "label": "VAEs",
        "flag": None,
        "artifacts": [
            {"dir": "vae",
             "url": f"{_KIJAI}/Wan2_1_VAE_bf16.safetensors"},
            {"dir": "vae",
             "url": f"{_REPACK}/vae/wan_2.1_vae.safetensors"},
        ],
    },
]
