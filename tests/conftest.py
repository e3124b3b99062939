import sys
import zipfile
from pathlib import Path

import pytest
from aws_cdk import App, assertions

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stacks.common_fate_stack import CommonFateStack
from stacks.config import DeploymentConfig
from stacks.lambda_base import ALL_UNITS


def synth_template(config, stack_id: str = "CommonFateTestStack") -> dict:
    stack = CommonFateStack(App(), stack_id, config=config)
    return assertions.Template.from_stack(
        stack, skip_cyclical_dependencies_check=True
    ).to_json()


@pytest.fixture(scope="session")
def bundle_dir(tmp_path_factory) -> Path:
    """A bundle directory holding a throwaway zip for every deployable unit."""
    root = tmp_path_factory.mktemp("bin")
    for unit in ALL_UNITS:
        with zipfile.ZipFile(unit.artifact_path(root), "w") as zf:
            zf.writestr("bootstrap", "#!/bin/sh\n")
    return root


@pytest.fixture(scope="session")
def make_config(bundle_dir):
    def _make(**overrides) -> DeploymentConfig:
        values = {"stage": "test", "bundle_dir": str(bundle_dir)}
        values.update(overrides)
        return DeploymentConfig(**values)

    return _make


@pytest.fixture(scope="session")
def default_template(make_config) -> dict:
    """Template for the default configuration, synthesized once per run."""
    return synth_template(make_config())


@pytest.fixture(scope="session")
def synth():
    return synth_template
