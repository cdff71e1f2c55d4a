"""
CLI entry point, when used as a module: `python -m cmbump`.

Useful for debugging in the IDEs (use the start-mode "Module", module "cmbump").
"""
from cmbump import cli

if __name__ == '__main__':
    cli.main()
