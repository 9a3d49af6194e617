"""
Keeper Deployment Scripts
=========================

Scripts for deploying and retiring keeper tasks on the Gelato automation platform.

Structure:
- configs: Per-keeper deployment config files and the code-deployment index
- triggers: Translation of config triggers into Gelato trigger payloads
- identity: Deployer private key resolution (env or keystore)
- automate: Gelato Automate contract and API client
- deploy: Config-driven reconciliation of active tasks
- deploy_all: All-in-one deployment driven by the deployed-state file
"""

__version__ = "1.0.0"
__author__ = "Keeper Automation Team"
