from .settings import Config, CredentialSettings, config, load_config

__all__ = ["Config", "CredentialSettings", "config", "load_config"]
