#!/usr/bin/env python3
import os

import aws_cdk as cdk
from dotenv import load_dotenv

from stacks.common_fate_stack import CommonFateStack
from stacks.config import DeploymentConfig, stack_name_from_env

# Exported environment wins over .env.
load_dotenv()

app = cdk.App()

config = DeploymentConfig.from_env()

CommonFateStack(
    app,
    stack_name_from_env(),
    config=config,
    env=cdk.Environment(
        account=os.getenv("CDK_DEFAULT_ACCOUNT"),
        region=os.getenv("CDK_DEFAULT_REGION"),
    ),
)

app.synth()
