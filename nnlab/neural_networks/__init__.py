"""
Neural networks module: layers, network, optimizers and training loops.
"""
from .functional import (
    ActivationId,
    LossId,
    Activation,
    Loss,
    get_activation,
    get_loss
)
from .layers import (
    Input,
    Output,
    Filter,
    Pooling,
    Padding,
    Stride,
    FullyConnected,
    Convolutional,
    MaxPooling
)
from ._network import Network
from .optimizers import (
    OptimizerId,
    Optimizer,
    GradDescent,
    StoGradDescent,
    Momentum,
    Nesterov,
    AdaGrad,
    RMSProp,
    Adam,
    get_optimizer
)
from ._training import Training
from ._persistence import (save_network, load_network)

__all__ = [
    'ActivationId',
    'LossId',
    'Activation',
    'Loss',
    'get_activation',
    'get_loss',
    'Input',
    'Output',
    'Filter',
    'Pooling',
    'Padding',
    'Stride',
    'FullyConnected',
    'Convolutional',
    'MaxPooling',
    'Network',
    'OptimizerId',
    'Optimizer',
    'GradDescent',
    'StoGradDescent',
    'Momentum',
    'Nesterov',
    'AdaGrad',
    'RMSProp',
    'Adam',
    'get_optimizer',
    'Training',
    'save_network',
    'load_network'
]
