#!/usr/bin/env python3
import logging

from aws_cdk import App

from infra.site_app import create_stacks
from infra.utilities import get_environment, get_log_level

logging.basicConfig(
    level=get_log_level(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = App()


create_stacks(app, get_environment())


app.synth()
