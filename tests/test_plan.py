"""
Tests for plan evaluation — category flags, deduplication, steps.
"""

from pathlib import Path

import pytest

from provisioner.core.models.config import ProvisionConfig
from provisioner.core.services.provisioning.data.catalog import ARTIFACT_CATEGORIES
from provisioner.core.services.provisioning.domain.plan import evaluate, summarize

# Always-on groups: 2 loras + 3 text encoders + 1 clip vision + 2 vaes
ALWAYS_ON = 8


def _config(**kwargs) -> ProvisionConfig:
    kwargs.setdefault("network_volume", Path("/vol"))
    return ProvisionConfig(**kwargs)


class TestCategoryFlags:
    def test_defaults_only_always_on(self):
        plan = evaluate(_config())
        assert len(plan.artifacts()) == ALWAYS_ON
        enabled = {g.category for g in plan.enabled_groups if g.artifacts}
        assert enabled == {"optimization_loras", "text_encoders", "clip_vision", "vae"}

    def test_disabled_groups_kept_in_plan(self):
        plan = evaluate(_config())
        vace = next(g for g in plan.groups if g.category == "vace")
        assert vace.enabled is False
        assert vace.flag == "download_vace"
        assert len(vace.artifacts) == 2

    def test_flag_enables_category(self):
        plan = evaluate(_config(download_vace=True))
        names = {a.name for a in plan.artifacts()}
        assert "Wan2_1-VACE_module_14B_bf16.safetensors" in names
        assert len(plan.artifacts()) == ALWAYS_ON + 2

    def test_unknown_flag_rejected(self):
        catalog = [{"category": "x", "flag": "no_such_flag", "artifacts": []}]
        with pytest.raises(ValueError, match="no_such_flag"):
            evaluate(_config(), catalog=catalog)

    def test_every_catalog_flag_is_a_config_field(self):
        for entry in ARTIFACT_CATEGORIES:
            flag = entry.get("flag")
            assert flag is None or flag in ProvisionConfig.model_fields


class TestDeduplication:
    def test_480p_and_720p_share_destinations(self):
        plan = evaluate(_config(
            download_480p_native_models=True,
            download_720p_native_models=True,
        ))
        # 3 (480p) + 1 unique to 720p
        assert len(plan.artifacts()) == ALWAYS_ON + 4

        keys = [a.key for a in plan.artifacts()]
        assert len(keys) == len(set(keys))

    def test_first_group_wins(self):
        plan = evaluate(_config(
            download_480p_native_models=True,
            download_720p_native_models=True,
        ))
        shared = next(a for a in plan.artifacts() if a.name == "wan2.1_t2v_14B_bf16.safetensors")
        assert shared.label == "480p native models"

    def test_summary_reports_shared_destinations(self):
        summary = summarize(evaluate(_config(
            download_480p_native_models=True,
            download_720p_native_models=True,
        )))
        assert len(summary.duplicate_destinations) == 2
        assert summary.artifacts == ALWAYS_ON + 4


class TestDestinations:
    def test_paths_under_volume(self):
        plan = evaluate(_config(download_480p_native_models=True))
        i2v = next(a for a in plan.artifacts() if "i2v_480p" in a.name)
        assert i2v.destination == Path(
            "/vol/ComfyUI/models/diffusion_models/wan2.1_i2v_480p_14B_bf16.safetensors"
        )

    def test_nested_model_dir(self):
        plan = evaluate(_config(download_wan_fun_and_sdxl_helper=True))
        promax = next(a for a in plan.artifacts() if "promax" in a.name)
        assert promax.directory == Path("/vol/ComfyUI/models/controlnet/SDXL/controlnet-union-sdxl-1.0")

    def test_explicit_filename(self):
        catalog = [{
            "category": "x",
            "flag": None,
            "artifacts": [{"dir": "vae", "url": "https://host/download?id=1", "filename": "v.safetensors"}],
        }]
        plan = evaluate(_config(), catalog=catalog)
        assert plan.artifacts()[0].name == "v.safetensors"

    def test_min_size_from_config(self):
        plan = evaluate(_config(min_artifact_bytes=5))
        assert all(a.min_size_bytes == 5 for a in plan.artifacts())


class TestSteps:
    def test_custom_node_requirements_required(self):
        plan = evaluate(_config(custom_nodes={"NodeA": "https://git/a.git"}))
        step = next(s for s in plan.install_steps() if s.name == "NodeA")
        assert step.required is True
        assert step.command[-1] == "/vol/ComfyUI/custom_nodes/NodeA/requirements.txt"

    def test_runtime_extras_best_effort(self):
        plan = evaluate(_config(custom_nodes={}, runtime_extras=("onnxruntime-gpu",)))
        steps = plan.install_steps()
        assert [s.name for s in steps] == ["runtime-extras"]
        assert steps[0].required is False
        assert steps[0].command[-1] == "onnxruntime-gpu"

    def test_no_runtime_extras(self):
        plan = evaluate(_config(custom_nodes={}, runtime_extras=()))
        assert plan.install_steps() == []

    def test_build_optional_by_default(self):
        plan = evaluate(_config())
        assert plan.build is not None
        assert plan.build.required is False

    def test_build_required(self):
        plan = evaluate(_config(require_optimizations=True))
        assert plan.build.required is True

    def test_build_disabled(self):
        plan = evaluate(_config(enable_optimizations=False))
        assert plan.build is None

    def test_to_dict(self):
        data = evaluate(_config(enable_optimizations=False)).to_dict()
        assert data["build"] is None
        assert len(data["artifacts"]) == ALWAYS_ON
        assert {g["category"] for g in data["groups"]} >= {"vae", "custom_node_requirements"}
