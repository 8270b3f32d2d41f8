"""
DeployR CLI - command-line client for DeployR managed jobs.

Packages:
- core: transport, config, session and authentication plumbing
- jobs: submit / list / status / result / flush
"""

__version__ = "0.1.0"
