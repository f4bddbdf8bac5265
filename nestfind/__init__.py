import litellm

__version__ = "0.1.0"


# keep provider-specific params from breaking calls across models
litellm.drop_params = True
litellm.suppress_debug_info = True
