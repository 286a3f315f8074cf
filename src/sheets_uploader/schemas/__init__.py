"""JSON schemas for sheets-uploader configuration files.

- config.schema.json: YAML file accepted by ``sheets-uploader --config``
"""
