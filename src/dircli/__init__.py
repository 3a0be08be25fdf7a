"""dircli - compile a directory of Python modules into a standalone CLI

Philosophy:
- The file system is the command tree
- Signatures are the argument grammar
- Docstrings are the help text
- Build time never imports user code

Every public function in a scanned module becomes a command, its first
parameter becomes the positional argument, its second parameter (a record
class) becomes the flags. The resulting click program is bundled into a
single executable with PyInstaller.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
