#+
# Setuptools script to install CompleteType. Make sure setuptools
# <https://setuptools.pypa.io/en/latest/index.html> is installed.
# Invoke from the command line in this directory as follows:
#
#     python3 setup.py build
#     sudo python3 setup.py install
#
# Runtime requirement: the libdbus-1.so.3 shared library, which
# is loaded via ctypes.
#-

import sys
import ctypes as ct
import setuptools
from setuptools.command.build_py import \
    build_py as std_build_py

class my_build_py(std_build_py) :
    "customization of build to perform additional validation."

    def run(self) :
        if sys.version_info < (3, 5) :
            sys.stderr.write("This module requires Python 3.5 or later.\n")
            sys.exit(-1)
        #end if
        try :
            ct.cdll.LoadLibrary("libdbus-1.so.3")
        except OSError :
            sys.stderr.write("Warning: libdbus-1.so.3 not found; it is needed at run time.\n")
        #end try
        super().run()
    #end run

#end my_build_py

setuptools.setup \
  (
    name = "CompleteType",
    version = "1.0",
    description = "readable complete type names for D-Bus types, for Python 3.5 or later",
    long_description =
        "parses and prints readable names for D-Bus types, such as"
        " Dict<String,Struct<Int32,Array<Byte>>>, and converts between them and"
        " D-Bus type signatures, with support for user-defined struct and"
        " enumeration types.",
    author = "Lawrence D'Oliveiro",
    author_email = "ldo@geek-central.gen.nz",
    license = "LGPL v2.1+",
    py_modules = ["dbussig", "completetype", "typedecl"],
    extras_require =
        {
            "test" : ["pytest"],
        },
    cmdclass =
        {
            "build_py" : my_build_py,
        },
  )
