"""
Alea pseudo-random number generator.

Based on Johannes Baagøe's Alea algorithm. Every random draw of the world
pipeline goes through one instance of this class, seeded once per
generation, so two runs from the same seed consume the same sequence.
"""


def _uint32(n):
    """Convert to unsigned 32-bit integer."""
    return int(n) & 0xFFFFFFFF


class AleaPRNG:
    """
    Seedable Alea generator.

    Seeds may be strings, numbers or sequences of either; a sequence mixes
    every element into the state, which is how derived streams (e.g. one per
    reflow) are created from a base seed.
    """

    def __init__(self, seed):
        """Initialize with seed string, number or sequence of them."""
        self.call_count = 0

        if hasattr(seed, "__iter__") and not isinstance(seed, str):
            args = list(seed)
        else:
            args = [seed]

        mash_n = 0xEFC8249D

        def mash(data):
            nonlocal mash_n
            data = str(data)
            for char in data:
                mash_n = mash_n + ord(char)
                h = 0.02519603282416938 * mash_n
                mash_n = _uint32(h)
                h -= mash_n
                h *= mash_n
                mash_n = _uint32(h)
                h -= mash_n
                mash_n += h * 0x100000000  # 2^32
            return _uint32(mash_n) * 2.3283064365386963e-10  # 2^-32

        self.s0 = mash(" ")
        self.s1 = mash(" ")
        self.s2 = mash(" ")
        self.c = 1

        for arg in args:
            self.s0 -= mash(arg)
            if self.s0 < 0:
                self.s0 += 1
            self.s1 -= mash(arg)
            if self.s1 < 0:
                self.s1 += 1
            self.s2 -= mash(arg)
            if self.s2 < 0:
                self.s2 += 1

    def random(self) -> float:
        """Generate next random number in [0, 1)."""
        self.call_count += 1
        t = 2091639 * self.s0 + self.c * 2.3283064365386963e-10  # 2^-32
        self.s0 = self.s1
        self.s1 = self.s2
        self.c = int(t)
        self.s2 = t - self.c
        return self.s2

    def randint(self, low: int, high: int) -> int:
        """Integer in [low, high], both ends inclusive."""
        if high < low:
            raise ValueError(f"empty range [{low}, {high}]")
        return int(self.random() * (high - low + 1)) + low

    def uniform(self, low: float, high: float) -> float:
        """Float in [low, high)."""
        return low + self.random() * (high - low)

    def seed32(self) -> int:
        """Draw a 32-bit integer, used to seed third-party generators."""
        return int(self.random() * 0x100000000)

    def choice(self, seq):
        """Choose a random element from a non-empty sequence."""
        if not seq:
            raise IndexError("Cannot choose from an empty sequence")
        return seq[int(self.random() * len(seq))]
