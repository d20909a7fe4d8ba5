# main.py
import pulumi
from avdworkspace import AvdWorkspaceBuilder
from config import load_config

def main():
    config_file = pulumi.Config().get("configFile") or "config.yaml"

    try:
        config = load_config(config_file)
    except Exception as e:
        pulumi.log.error(f"Invalid configuration in '{config_file}': {e}")
        raise

    builder = AvdWorkspaceBuilder(config)

    # Build resources
    try:
        builder.build()
    except Exception as e:
        pulumi.log.error(f"Failed during resource build: {e}")
        raise

    for name, value in builder.outputs().items():
        pulumi.export(name, value)

if __name__ == "__main__":
    main()
