"""Gas safety certificate renewal: lead intake, admin workspace and booking completion."""

__version__ = "1.0.0"
