"""
Ordered stack of layers.
"""


class Network:
    """
    Sequence of layers where each layer's output feeds the next one.

    Args:
        layers (list, optional): Layers to add in order.
    """

    def __init__(self, layers=None):
        self.layers = []
        for layer in layers or []:
            self.add(layer)

    def add(self, layer):
        """
        Append a layer and give it a stable ``layer_<index>`` id.

        Raises:
            ValueError: If the layer's input size differs from the previous
                layer's output size.
        """
        if self.layers:
            previous = self.layers[-1].osize()
            if layer.isize().size != previous.size:
                raise ValueError(
                    f"Layer {len(self.layers)} expects {layer.isize().size} inputs "
                    f"but the previous layer outputs {previous.size}")
        layer.layer_id = f"layer_{len(self.layers)}"
        self.layers.append(layer)
        return self

    def feedforward(self, sample):
        """Run ``sample`` through every layer; returns the last layer's value."""
        output = sample
        for layer in self.layers:
            output = layer.forward(output)
        return output

    def init(self, generator):
        """Fill every layer's parameters from ``generator``."""
        for layer in self.layers:
            layer.init(generator)
        return self

    def prepare(self):
        for layer in self.layers:
            layer.prepare()

    def isize(self):
        return self.layers[0].isize()

    def osize(self):
        return self.layers[-1].osize()

    def __len__(self):
        return len(self.layers)

    def __getitem__(self, index):
        return self.layers[index]

    def __iter__(self):
        return iter(self.layers)

    def __repr__(self):
        inner = ",\n  ".join(repr(layer) for layer in self.layers)
        return f"Network([\n  {inner}\n])"
