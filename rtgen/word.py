#
# Machine word of the target
#
# Copyright (c) 2020, Arm Limited. All rights reserved.
# SPDX-License-Identifier: BSD-3-Clause
#

class Word:
    """
    Machine word of the target. This is used for alignment and for
    checking and formatting region origins/sizes and fixed section sizes.
    """
    WIDTHS = [32, 64]

    def __init__(self, width=32):
        if isinstance(width, Word):
            width = width.width
        if isinstance(width, str):
            width = int(width.lstrip('uU'), 0)
        if width not in Word.WIDTHS:
            raise ValueError("Unsupported word width %r, must be one of %s" % (
                width, ', '.join(map(str, Word.WIDTHS))))

        self.width = width
        self.align = width // 8
        self.max = (1 << width) - 1

    def __call__(self, value):
        if isinstance(value, str):
            value = int(value, 0)
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError("Expected an integer for a %s, got %r" % (
                self, value))
        if value < 0 or value > self.max:
            raise ValueError("Value %#x does not fit in a %d-bit word" % (
                value, self.width))
        return value

    def hex(self, value):
        return '0x%X' % value

    def __str__(self):
        return 'u%d' % self.width

    def __repr__(self):
        return 'Word(%d)' % self.width

    def __eq__(self, other):
        if isinstance(other, Word):
            return self.width == other.width
        else:
            return self.width == other

    def __hash__(self):
        return hash(self.width)
