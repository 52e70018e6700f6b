"""
Buildspec bodies for the CodeBuild projects of the release pipeline.

These are plain dicts handed to ``BuildSpec.from_object`` so they can be
inspected without synthesising a stack.
"""

CDK_OUTPUT_ARTIFACT = "CdkOutputArtifact"
SITE_OUTPUT_ARTIFACT = "SiteOutputArtifact"

SITE_DIRECTORY = "site"
CDK_OUT_DIRECTORY = "cdk.out"

DISTRIBUTION_CONFIG_FILE = "distribution-config.json"


def synth_build_spec() -> dict:
    """
    returns the buildspec for the Build stage

    Both outputs are secondary artifacts keyed by the pipeline artifact names.
    """
    return {
        "version": "0.2",
        "phases": {
            "install": {
                "runtime-versions": {"python": "3.11", "nodejs": "18"},
                "commands": [
                    "npm install -g aws-cdk",
                    "pip install -e .",
                ],
            },
            "build": {
                "commands": [
                    "cdk synth",
                    f"test -d {SITE_DIRECTORY} || (echo 'no {SITE_DIRECTORY}/ directory to publish' && exit 1)",
                ],
            },
        },
        "artifacts": {
            "secondary-artifacts": {
                CDK_OUTPUT_ARTIFACT: {
                    "base-directory": CDK_OUT_DIRECTORY,
                    "files": ["**/*"],
                },
                SITE_OUTPUT_ARTIFACT: {
                    "base-directory": SITE_DIRECTORY,
                    "files": ["**/*"],
                },
            },
        },
    }


def invalidation_build_spec() -> dict:
    """
    returns the buildspec invalidating every path on $DISTRIBUTION_ID
    """
    return {
        "version": "0.2",
        "phases": {
            "build": {
                "commands": [
                    'aws cloudfront create-invalidation --distribution-id "$DISTRIBUTION_ID" --paths "/*"',
                ],
            },
        },
    }


def promotion_commands() -> list:
    """
    returns the commands pointing the default cache behaviour at $GREEN_ORIGIN_ID

    The ETag and the config come from the same read, and the write is
    conditioned on that ETag. A concurrent change makes update-distribution
    fail with PreconditionFailed and the action has to be retried by hand.
    """
    return [
        f'aws cloudfront get-distribution-config --id "$DISTRIBUTION_ID" --output json > {DISTRIBUTION_CONFIG_FILE}',
        f"ETAG=$(jq -r '.ETag' {DISTRIBUTION_CONFIG_FILE})",
        f"jq --arg greenOriginId \"$GREEN_ORIGIN_ID\" "
        f"'.DistributionConfig | .DefaultCacheBehavior.TargetOriginId = $greenOriginId' "
        f"{DISTRIBUTION_CONFIG_FILE} > updated-{DISTRIBUTION_CONFIG_FILE}",
        'aws cloudfront update-distribution --id "$DISTRIBUTION_ID" --if-match "$ETAG" '
        f"--distribution-config file://updated-{DISTRIBUTION_CONFIG_FILE}",
    ]


def promotion_build_spec() -> dict:
    return {
        "version": "0.2",
        "phases": {
            "build": {
                "commands": promotion_commands(),
            },
        },
    }
