# wheelflow/validation/schema.py
# parameterSetting.json of a parameterStudy component

_FILE_TRANSFER_ITEM = {
    "type": "object",
    "required": ["srcName", "dstNode"],
    "properties": {
        "srcName": {"type": "string", "minLength": 1},
        "srcNode": {"type": "string"},
        "dstNode": {"type": "string"},
        "dstName": {"type": "string"},
    },
    "additionalProperties": True,
}

PS_SETTING_SCHEMA = {
    "type": "object",
    "required": ["version", "targetFiles", "params"],
    "properties": {
        "version": {"const": 2},
        "targetFiles": {
            "type": "array",
            "items": {
                "oneOf": [
                    {"type": "string", "minLength": 1},
                    {
                        "type": "object",
                        "required": ["targetName"],
                        "properties": {
                            "targetName": {"type": "string", "minLength": 1},
                            "targetNode": {"type": "string"},
                        },
                        "additionalProperties": True,
                    },
                ]
            },
        },
        "params": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["keyword", "type"],
                "properties": {
                    "keyword": {"type": "string", "minLength": 1},
                    "type": {"enum": ["min-max-step", "list", "file"]},
                    "min": {"type": "number"},
                    "max": {"type": "number"},
                    "step": {"type": "number"},
                    "list": {"type": "array"},
                },
                # range params need all three numbers, the others an explicit list
                "if": {"properties": {"type": {"const": "min-max-step"}}},
                "then": {"required": ["min", "max", "step"]},
                "else": {"required": ["list"]},
                "additionalProperties": True,
            },
        },
        "scatter": {"type": "array", "items": _FILE_TRANSFER_ITEM},
        "gather": {"type": "array", "items": _FILE_TRANSFER_ITEM},
    },
    "additionalProperties": True,
}
