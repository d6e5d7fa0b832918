#
# Argument and recipe parsing
#
# Copyright (c) 2020, Arm Limited. All rights reserved.
# SPDX-License-Identifier: BSD-3-Clause
#

import re
import argparse
import sys
import os
import io
import toml
from argparse import Namespace
import itertools as it

def nsnest(ns):
    """
    Create a "nested namespace" from a normal namespace. This
    uses the '.' character as a separator in namespace keys to
    determine how many namespaces are nested.
    """
    if isinstance(ns, Namespace):
        return Namespace(**nsnest(ns.__dict__))

    ndict = {}
    nested = {}
    for k, v in ns.items():
        if '.' in k:
            scope, name = k.split('.', 1)
            nested.setdefault(scope, {})[name] = v
        else:
            ndict[k] = v
    for k, v in nested.items():
        ndict[k] = nsnest(Namespace(**v))
    return ndict

def nsmerge(a, b):
    """
    Merge two Namespaces or dicts recursively, with b taking priority.
    Keys keep the order they first appear in a, then b, since sets are
    ordered. Note this doesn't work with argparse defaults.
    """
    if isinstance(a, Namespace) and isinstance(b, Namespace):
        return Namespace(**nsmerge(a.__dict__, b.__dict__))
    elif isinstance(a, Namespace):
        a = a.__dict__
    elif isinstance(b, Namespace):
        b = b.__dict__

    ndict = {}
    for k in it.chain(a, (k for k in b if k not in a)):
        if k in a and k in b and (
                isinstance(a[k], (Namespace, dict)) and
                isinstance(b[k], (Namespace, dict))):
            ndict[k] = nsmerge(a[k], b[k])
        elif k in b and b[k] is not None:
            ndict[k] = b[k]
        elif k in a and a[k] is not None:
            ndict[k] = a[k]
        else:
            ndict[k] = None
    return ndict

# This class exists to intercept add_argument calls and remember them.
class ArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args, **kwargs):
        self._sets = []
        self._parent = None
        self._name = None
        self._dest = None
        self._hidden = False

        # allow forcing underscores in optional arguments
        self._underscore = kwargs.pop('underscore', True)

        # things get confusing with abbrevs
        kwargs.setdefault('allow_abbrev', False)
        super().__init__(*args, **kwargs)

    def _post_add_argument(self, *args, **kwargs):
        # default gets in the way of namespace merging, just test
        # for None where needed
        assert kwargs.get('default', None) in {None, argparse.SUPPRESS}, (
            "default in argparse not supported")

        # some extra special types
        if kwargs.get('type', None) == bool:
            def parsebool(x):
                if x in {'false', 'False', 'no', '0', ''}:
                    return False
                elif x in {'true', 'True', 'yes', '1'}:
                    return True
                else:
                    raise ValueError("I don't recognize this bool "
                        "argument %r" % x)
            kwargs['type'] = parsebool
            kwargs.setdefault('nargs', '?')
            kwargs.setdefault('const', True)
            kwargs.setdefault('metavar', '{true,false}')
        elif kwargs.get('type', None) == int:
            # allow hex ints
            def parseint(x):
                return int(x, 0)
            kwargs['type'] = parseint

        # enable help=argparse.SUPPRESS but in a more flexible way
        if kwargs.pop('hidden', False) or self._hidden:
            kwargs['help'] = argparse.SUPPRESS

        # enable fake arguments for better help text
        if kwargs.pop('fake', False):
            args = [arg for arg in args if arg.startswith('--')]
            kwargs['dest'] = ''

        return args, kwargs

    def add_argument(self, *args, **kwargs):
        args, kwargs = self._post_add_argument(*args, **kwargs)

        if self._parent:
            # Generate nested argument in parent
            nkwargs = kwargs.copy()
            if any(arg.startswith('--') for arg in args):
                nargs = [re.sub('--(.*)', r'--%s.\1' % self._name, arg)
                    for arg in args
                    if arg.startswith('--')]
                name = args[-1][2:]
            else:
                nargs = ['--'+self._name]
                name = args[-1]
            if nkwargs.get('dest', True):
                nkwargs['dest'] = '%s.%s' % (
                    self._dest, nkwargs.get('dest', name))
            if not (kwargs.get('action', 'store')
                    .startswith('store_')):
                nkwargs.setdefault('metavar', name.upper())
            self._parent.add_argument(*nargs, **nkwargs)

        return super().add_argument(*args, **kwargs)

    def add_glob(self, cls=None, **kwargs):
        """
        Make all following arguments hidden, instead show a glob (*) with
        summarizing help text. Useful when the number of arguments is long.
        """
        if hasattr(cls, '__arghelp__'):
            kwargs.setdefault('help', cls.__arghelp__)

        self.add_argument('--*', **{**kwargs, 'fake': True})

        self._hidden = True

        if hasattr(cls, '__argparse__'):
            cls.__argparse__(self)

        return self

    def add_nestedparser(self, arg, cls=None, **kwargs):
        """
        Add a nested parser, this is different than a subparser in that the
        nested parser in namespaced with long-form optional arguments instead of
        provided a new command.
        """
        # we only support long-form names currently
        assert arg.startswith('--')
        name = arg[2:]
        dest = kwargs.get('dest', name)

        nested = ArgumentParser(add_help=False)
        nested._parent = self
        nested._name = name
        nested._dest = dest
        nested._hidden = kwargs.get('hidden', self._hidden)

        if hasattr(cls, '__argparse__'):
            cls.__argparse__(nested, name=name)

        return nested

    def add_set(self, arg, cls=None, **kwargs):
        """
        Create a nested parser that can capture a set of same-type objects,
        written as --SET.KEY.OPTION. Keys are only known at parse time, so
        these are matched after argparse is done with the known arguments.
        """
        # we only support long-form names currently
        assert arg.startswith('--')
        name = arg[2:]
        dest = kwargs.get('dest', name)
        metavar = kwargs.get('metavar', name.upper())
        fields = {}
        outer = self

        class SetParser(ArgumentParser):
            def add_argument(self, *args, **kwargs):
                args, kwargs = self._post_add_argument(*args, **kwargs)
                assert all(arg.startswith('--') for arg in args), (
                    "only optional arguments are supported in sets")

                for arg in args:
                    fields[arg[2:]] = (kwargs.get('dest', args[-1][2:]), kwargs)

                # fake arg to show in help
                outer.add_argument(*['--%s.%s.%s' % (name, metavar, arg[2:])
                        for arg in args],
                    fake=True, metavar=kwargs.get('metavar',
                        args[-1][2:].upper()),
                    help=kwargs.get('help', None))

        self._sets.append((name, dest, fields))
        nested = SetParser(add_help=False)
        nested._hidden = self._hidden

        if hasattr(cls, '__argparse__'):
            cls.__argparse__(nested, name=name)

        return nested

    def _parse_set(self, arg, args):
        m = re.match(r'^--(\w+)\.([\w-]+)\.(\w+)(?:=(.*))?$', arg, re.S)
        if not m:
            return None

        for name, dest, fields in self._sets:
            if m.group(1) == name and m.group(3) in fields:
                break
        else:
            return None

        fielddest, kwargs = fields[m.group(3)]
        value = m.group(4)
        if value is None and kwargs.get('nargs', None) == '?':
            value = kwargs.get('const', None)
        else:
            if value is None:
                if args and not args[0].startswith('-'):
                    value = args.pop(0)
                else:
                    self.error("argument %s: expected one argument" % arg)
            if 'type' in kwargs:
                try:
                    value = kwargs['type'](value)
                except (TypeError, ValueError):
                    self.error("argument %s: invalid value: %r" % (
                        arg.split('=', 1)[0], value))

        fieldnames = {d for d, _ in fields.values()}
        return dest, m.group(2), fieldnames, fielddest, value

    def parse_known_args(self, args=None, ns=None):
        if args is None:
            args = sys.argv[1:]

        # force underscores?
        if self._underscore:
            nargs = []
            for arg in args:
                if arg.startswith('--'):
                    a, *b = arg[2:].split('=', 1)
                    a = a.replace('-', '_')
                    arg = '--%s%s' % (a, ''.join('='+x for x in b))
                nargs.append(arg)
            args = nargs

        # parse explicit args first
        ns, args = super().parse_known_args(args, ns)

        # parse out sets, keeping the order keys are first seen
        for _, dest, _ in self._sets:
            if not isinstance(getattr(ns, dest, None), dict):
                setattr(ns, dest, {})

        unknown = []
        while args:
            arg = args.pop(0)
            match = self._parse_set(arg, args)
            if not match:
                unknown.append(arg)
                continue

            dest, key, fieldnames, fielddest, value = match
            entries = getattr(ns, dest)
            if key not in entries:
                entries[key] = Namespace(**{f: None for f in fieldnames})
            setattr(entries[key], fielddest, value)

        # delete fake args
        ns.__dict__ = {
            k: v for k, v in ns.__dict__.items()
            if k and '!' not in k}

        ns = nsnest(ns)
        return ns, unknown

    def parse_dict(self, dict_, prefix=None):
        """
        Apply the argument parser to a dictionary or namespace, sanitizing and
        applying the same type rules that would be applied on the command line.
        """
        def buildargs(prefix, dict_):
            if isinstance(dict_, Namespace):
                dict_ = dict_.__dict__

            args = []
            for k, v in dict_.items():
                if isinstance(v, dict) or isinstance(v, Namespace):
                    args.extend(buildargs(prefix + [k], v))
                elif v is None:
                    pass
                elif v is True:
                    args.append('--%s=true' % '.'.join(prefix + [k]))
                else:
                    args.append('--%s=%s' % ('.'.join(prefix + [k]), v))

            return args

        # build arguments
        args = buildargs([], dict_)

        stderr = sys.stderr
        sys.stderr = io.StringIO()
        try:
            # parse the arguments
            return self.parse_args(args)
        except SystemExit:
            if prefix:
                lines = sys.stderr.getvalue().splitlines()
                for line in lines[:-1]:
                    print(line, file=stderr)
                print("%s: error: in %s:" % (
                    os.path.basename(sys.argv[0]), prefix.rstrip('.')),
                    file=stderr)
                print(lines[-1], file=stderr)
            else:
                stderr.write(sys.stderr.getvalue())
            raise
        finally:
            sys.stderr = stderr

    def parse_toml(self, path, prefix=None):
        """
        Convenience method for applying parse_dict to a toml file.
        """
        try:
            return self.parse_dict(toml.load(path), prefix=prefix)
        except SystemExit:
            print("%s: error: while parsing %r" % (
                os.path.basename(sys.argv[0]), path),
                file=sys.stderr)
            raise
