#
# Command-line interface
#
# Copyright (c) 2020, Arm Limited. All rights reserved.
# SPDX-License-Identifier: BSD-3-Clause
#

import sys
import os.path
import collections as co
from .layout import LinkerScript
from .errors import LinkerError
from .argstuff import ArgumentParser

COMMANDS = co.OrderedDict()
def command(cls):
    assert cls.__argname__ not in COMMANDS
    COMMANDS[cls.__argname__] = cls
    return cls

def layout_argparse(cls, parser):
    parser.add_argument('--path',
        help="Directory containing the layout. Defaults to the current "
            "directory.")
    parser.add_argument('--recipe',
        help="Path to the layout.toml file describing the layout, relative "
            "to the layout path. Defaults to layout.toml.")
    parser.add_argument('--include',
        help="Device specific linker script providing the interrupt "
            "vectors. Defaults to device.x.")
    parser.add_glob(LinkerScript,
        help="This command also accepts all layout options, for example "
            "--region.FLASH.origin=0x0. Run '%s options' for a full list."
            % os.path.basename(sys.argv[0]))

@command
class RenderCommand:
    """
    Render the linker script to stdout. This may not be a linker script
    usable on a device, but helps inspecting the output.
    """
    __argname__ = "render"
    __arghelp__ = __doc__
    @classmethod
    def __argparse__(cls, parser):
        layout_argparse(cls, parser)
    def __init__(self, include=None, **args):
        ls = LinkerScript.scan(**args)
        ls.render_to(sys.stdout, include=include or 'device.x')

@command
class GenerateCommand:
    """
    Generate the linker script, written to link.x in the layout path
    unless another output is given.
    """
    __argname__ = "generate"
    __arghelp__ = __doc__
    __argaliases__ = ["gen"]
    @classmethod
    def __argparse__(cls, parser):
        layout_argparse(cls, parser)
    def __init__(self, include=None, **args):
        ls = LinkerScript.scan(**args)
        path = ls.generate(include=include or 'device.x')
        print('generated %s' % path)

@command
class LayoutCommand:
    """
    List the regions and sections of the layout in placement order.
    """
    __argname__ = "layout"
    __arghelp__ = __doc__
    __argaliases__ = ["ls"]
    @classmethod
    def __argparse__(cls, parser):
        layout_argparse(cls, parser)
    def __init__(self, include=None, **args):
        ls = LinkerScript.scan(**args)

        print('layout %s (%s)' % (ls.output, ls.word))
        for region in ls.regions:
            print('  %(name)-34s %(region)s' % dict(
                name='region.%s' % region.name, region=region))
        for section in ls.sorted_sections():
            print('  %(name)-34s %(section)s' % dict(
                name='section.%s' % section.name, section=section))

@command
class CopiesCommand:
    """
    List the symbols startup code needs to copy sections from where they
    are loaded to where they run.
    """
    __argname__ = "copies"
    __arghelp__ = __doc__
    @classmethod
    def __argparse__(cls, parser):
        layout_argparse(cls, parser)
    def __init__(self, include=None, **args):
        ls = LinkerScript.scan(**args)
        for load, start, end in ls.copies():
            print('%-24s %-24s %s' % (load, start, end))

@command
class OptionsCommand:
    """
    List all layout options. These can be provided on the command line
    or in a layout.toml file.
    """
    __argname__ = "options"
    __arghelp__ = __doc__
    def __init__(self):
        parser = ArgumentParser(
            prog="%s [command]" % os.path.basename(sys.argv[0]),
            usage="%(prog)s [options]",
            add_help=False)
        LinkerScript.__argparse__(parser)
        parser.print_help()

def main():
    parser = ArgumentParser(
        description="A tool for generating linker scripts from a "
            "description of memory regions and sections.")
    subparsers = parser.add_subparsers(title="subcommand", dest="command",
        help="Command to run.")
    for name, command in COMMANDS.items():
        subparser = subparsers.add_parser(name,
            help=getattr(command, '__arghelp__', None),
            aliases=getattr(command, '__argaliases__', []))
        subparser.set_defaults(command=command)
        if hasattr(command, '__argparse__'):
            command.__argparse__(subparser)

    args = parser.parse_args()
    if not args.command:
        parser.parse_args(['-h'])
    try:
        args.command(**{
            k: v for k, v in args.__dict__.items()
            if k != 'command'})
    except (LinkerError, OSError, ValueError) as e:
        print("%s: error: %s" % (os.path.basename(sys.argv[0]), e),
            file=sys.stderr)
        sys.exit(1)
    sys.exit(0)

if __name__ == "__main__":
    main()
