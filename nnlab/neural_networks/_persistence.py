"""
Save and load networks as numpy ``.npz`` archives.

Each layer ``i`` is stored under the prefix ``layer_<i>.``: its kind, its
activation id, its constructor geometry (``config.<name>``) and its
parameters (``param.<name>``).
"""
import numpy as np

from ._network import Network
from .layers import Convolutional, FullyConnected, MaxPooling

_LAYER_TYPES = {
    cls.__name__: cls for cls in (FullyConnected, Convolutional, MaxPooling)
}


def save_network(network, path):
    """
    Write a network to ``path``.

    Args:
        network (Network): Network to save.
        path (str or Path): Destination; numpy appends ``.npz`` when missing.
    """
    arrays = {"n_layers": np.array(len(network))}
    for index, layer in enumerate(network):
        prefix = f"layer_{index}."
        arrays[prefix + "kind"] = np.array(type(layer).__name__)
        arrays[prefix + "activation"] = np.array(int(layer.activation_id))
        for name, value in layer.config().items():
            arrays[f"{prefix}config.{name}"] = np.array(value)
        for name, tensor in layer.parameters().items():
            arrays[f"{prefix}param.{name}"] = tensor.data.copy()
    np.savez(path, **arrays)


def load_network(path):
    """
    Rebuild a network written by ``save_network``.

    Raises:
        ValueError: If the archive names an unknown layer kind.
    """
    network = Network()
    with np.load(path, allow_pickle=False) as archive:
        for index in range(int(archive["n_layers"])):
            prefix = f"layer_{index}."
            kind = str(archive[prefix + "kind"])
            if kind not in _LAYER_TYPES:
                raise ValueError(f"Unknown layer kind: {kind}")

            config = _section(archive, prefix + "config.")
            config = {name: tuple(int(v) for v in value) for name, value in config.items()}
            layer = _LAYER_TYPES[kind].from_config(config)
            layer.connect(int(archive[prefix + "activation"]))
            layer.init_parameters(**_section(archive, prefix + "param."))
            layer.prepare()
            network.add(layer)
    return network


def _section(archive, prefix):
    return {key[len(prefix):]: archive[key] for key in archive.files if key.startswith(prefix)}
