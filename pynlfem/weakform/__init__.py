from .weakform import ANY, Func, Geom, WeakForm, MatrixFormVol, VectorFormVol, MatrixFormSurf, VectorFormSurf
from .coefficients import (Coefficient, ConstantCoefficient, SpatialCoefficient,
                           MarkerCoefficient, NonlinearCoefficient, as_coefficient)
from .h1 import (DefaultJacobianDiffusion, DefaultResidualDiffusion, DefaultVectorFormVol,
                 DefaultMatrixFormSurf, DefaultResidualSurf, DefaultVectorFormSurf,
                 DefaultWeakFormPoisson, HeatNewtonBCWeakForm)
