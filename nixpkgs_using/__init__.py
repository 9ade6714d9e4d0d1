"""
nixpkgs-using - Find update pull requests for the Nix packages you use.

A CLI tool that:
1. Evaluates your flake to list the packages your configuration installs
2. Fetches open pull requests from nixpkgs (or another GitHub repository)
3. Keeps the ones whose title targets one of your packages
4. Marks pull requests that appeared since the last run as new

Usage:
    nixpkgs-using prs                  # Update PRs for your packages
    nixpkgs-using prs --only-new       # Only PRs not shown before
    nixpkgs-using list                 # Packages detected in your configuration
"""

__version__ = "0.1.0"
__author__ = "nixpkgs-using"
