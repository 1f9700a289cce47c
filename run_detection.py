#!/usr/bin/env python3
"""Simple runner script for task completion detection."""
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

# Import and run main
from task_completion.completion_main import main

if __name__ == "__main__":
    main()
