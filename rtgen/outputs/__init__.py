#
# Output utils
#
# Copyright (c) 2020, Arm Limited. All rights reserved.
# SPDX-License-Identifier: BSD-3-Clause
#

import io

class OutputBlob(io.StringIO):
    """
    Text buffer with a stack of format attributes. Text written with
    writef/printf is %-formatted against the current attributes and
    indented by the current indent.
    """
    def __init__(self, *args, **kwargs):
        super().__init__(*args)
        self._attrs = []
        self._needindent = True
        self.pushattrs(**{'':''})
        self.pushattrs(**kwargs)

    def writef(self, _fmt, **kwargs):
        _fmt = _fmt % self._expandall(self.attrs(**kwargs))
        for c in _fmt:
            if c == '\n':
                self._needindent = True
            else:
                if self._needindent:
                    self._needindent = False
                    super().write(self.get('indent', 0)*' ')
            self.write(c)

    def print(self, *args):
        for arg in args:
            self.write(str(arg))
        self.write('\n')

    def printf(self, *args, **kwargs):
        for arg in args:
            self.writef(str(arg), **kwargs)
        self.writef('\n')

    def pushattrs(self, **kwargs):
        nkwargs = {}
        for k, v in kwargs.items():
            while isinstance(v, str) and '%(' in v:
                v = v % self._expandall(self.attrs(**kwargs))
            nkwargs[k] = v

        self._attrs.append(nkwargs)

        class context:
            def __enter__(_):
                return self
            def __exit__(*_):
                self.popattrs()
        return context()

    def popattrs(self):
        return self._attrs.pop()

    def pushindent(self, indent=4):
        return self.pushattrs(indent=self.get('indent', 0) + indent)

    def _expandall(self, attrs):
        expanded = {}
        for k, v in attrs.items():
            if v is None:
                continue
            expanded[k] = v
            if k.upper() not in expanded and isinstance(v, str):
                expanded[k.upper()] = v.upper()
        return expanded

    def __getitem__(self, key):
        for a in reversed(self._attrs):
            if key in a:
                return a[key]

        for a in reversed(self._attrs):
            a = {k.upper(): v for k, v in a.items()}
            if key in a:
                return a[key].upper()

        raise KeyError(key)

    def get(self, key, default=None):
        try:
            return self[key]
        except KeyError:
            return default

    def attrs(self, **kwargs):
        attrs = {}
        for a in self._attrs:
            attrs.update(a)
        attrs.update(kwargs)
        return attrs

    def __str__(self):
        return self.getvalue()

class OutputField(list):
    """
    List of OutputBlobs sharing attributes with a parent output. Each
    append creates a new blob that can be written independently and
    assembled by the parent later.
    """
    def __init__(self, inherit=None, **kwargs):
        super().__init__()
        self._inherit = inherit
        self._attrs = kwargs

    def insert(self, _i, _fmt=None, **kwargs):
        outf = OutputBlob(**{
            **(self._inherit.attrs() if self._inherit else {}),
            **self._attrs,
            **kwargs})
        if _fmt is not None:
            outf.writef(_fmt)

        super().insert(_i, outf)
        return outf

    def append(self, _fmt=None, **kwargs):
        return self.insert(len(self), _fmt, **kwargs)

# Output class imports
# These must be imported here, since they depend on the above utilities
from .ld import LdOutput
