#!/usr/bin/env python3
"""
Root launcher for the test network bootstrap.
Imports the scenario module and calls its run() function.
"""
import sys
import os

# Ensure the current directory is in the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from scenarios.boot_network import run

if __name__ == "__main__":
    sys.exit(run())
